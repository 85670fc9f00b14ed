"""Kitchen unit conversions and serving-size scaling.

Each converter rounds to a default number of decimals suited to how the
value is shown: whole grams and millilitres, ounces to two places, fluid
ounces to one.
"""

GRAMS_PER_OUNCE = 28.3495
ML_PER_FL_OUNCE = 29.5735
ML_PER_US_CUP = 236.588


def _round(value: float, precision: int) -> float:
    return round(value, precision) if precision else float(round(value))


def grams_to_ounces(grams: float, precision: int = 2) -> float:
    return _round(grams / GRAMS_PER_OUNCE, precision)


def ounces_to_grams(ounces: float, precision: int = 0) -> float:
    return _round(ounces * GRAMS_PER_OUNCE, precision)


def ml_to_fluid_ounces(ml: float, precision: int = 1) -> float:
    return _round(ml / ML_PER_FL_OUNCE, precision)


def fluid_ounces_to_ml(fl_oz: float, precision: int = 0) -> float:
    return _round(fl_oz * ML_PER_FL_OUNCE, precision)


def ml_to_us_cups(ml: float, precision: int = 2) -> float:
    return _round(ml / ML_PER_US_CUP, precision)


def us_cups_to_ml(cups: float, precision: int = 0) -> float:
    return _round(cups * ML_PER_US_CUP, precision)


def celsius_to_fahrenheit(celsius: float, precision: int = 0) -> float:
    return _round(celsius * 9 / 5 + 32, precision)


def fahrenheit_to_celsius(fahrenheit: float, precision: int = 0) -> float:
    return _round((fahrenheit - 32) * 5 / 9, precision)


def scale_amount(amount: str, ratio: float, precision: int = 0) -> str:
    """Scale a numeric ingredient amount by `ratio`.

    Amounts that are not plain numbers ("to taste", "1/2") come back unchanged.
    """
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return amount
    return f"{value * ratio:.{precision}f}"
