from unittest.mock import patch

from recipebook import main


def test_main_runs_uvicorn_with_settings():
    with patch.object(main.uvicorn, "run") as run:
        main.main([])
    run.assert_called_once()
    args, kwargs = run.call_args
    assert args == ("recipebook.app:app",)
    assert kwargs["host"] == main.settings.HOST
    assert kwargs["port"] == main.settings.PORT
    assert kwargs["reload"] is False


def test_main_host_and_port_flags():
    with patch.object(main.uvicorn, "run") as run:
        main.main(["--host", "0.0.0.0", "--port", "9000", "--reload"])
    kwargs = run.call_args.kwargs
    assert (kwargs["host"], kwargs["port"], kwargs["reload"]) == ("0.0.0.0", 9000, True)
