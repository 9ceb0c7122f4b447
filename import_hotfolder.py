from importer.cli import main as _cli_main
from importer.environment import EnvironmentManager, build_context
from importer.flow_control import ImporterFlowControl

__all__ = ["build_context", "main", "run_once"]


def main() -> None:
    """Script entry point, delegates to `importer.cli.main`."""
    _cli_main()


def run_once() -> None:
    """Drain the hotfolder once with the settings from settings.toml."""
    import config

    env = EnvironmentManager(config.CONFIG)
    env.apply()
    _ = ImporterFlowControl(env.initialize()).run_once()


if __name__ == "__main__":
    main()
