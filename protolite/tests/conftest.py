"""pytest configuration shared by the schema and wire suites."""


def pytest_configure(config):
    """Show test names without their file paths."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False
