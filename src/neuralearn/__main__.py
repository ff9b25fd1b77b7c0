"""Allow running as `python -m neuralearn`.

``NEURALEARN_RUNTIME_MODE`` picks the surface: ``rest``, ``mcp`` or
``combined`` (the default).
"""

from neuralearn.config import settings


def main() -> None:
    mode = settings.runtime_mode
    if mode == "rest":
        from neuralearn.rest_server import main as run
    elif mode == "mcp":
        from neuralearn.server import main as run
    else:
        from neuralearn.combined_server import main as run
    run()


if __name__ == "__main__":
    main()
