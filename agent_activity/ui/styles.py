"""CSS styles for the Agent Activity TUI."""

APP_CSS = """
Screen {
    layout: horizontal;
}

#primary-container {
    width: 3fr;
    min-width: 40;
    height: 100%;
    border: round $primary;
    padding: 0 1;
}

#sessions-container {
    width: 2fr;
    height: 100%;
    border: round $accent;
}

#primary-header, #sessions-header {
    height: 1;
    text-style: bold;
}

#primary-header {
    color: $primary;
}

#sessions-header {
    color: $accent;
    padding: 0 1;
}

#primary-panel {
    height: 1fr;
    overflow-y: auto;
    padding: 1 0 0 0;
}

#session-list {
    height: 1fr;
    background: $background;
}

SessionItem {
    height: 1;
    padding: 0 1;
}

SessionItem.-stopped {
    text-opacity: 60%;
}

SessionItem.-critical {
    background: $error 20%;
}
"""
