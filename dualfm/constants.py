"""Constants for DualFM."""

# Box drawing characters (Unicode).
BOX_TL = "╔"
BOX_TR = "╗"
BOX_BL = "╚"
BOX_BR = "╝"
BOX_H = "═"
BOX_V = "║"

# Single-line box characters.
SB_TL = "┌"
SB_TR = "┐"
SB_BL = "└"
SB_BR = "┘"
SB_H = "─"
SB_V = "│"

# ASCII fallback for terminals without Unicode.
ASCII_BOX = ("+", "+", "+", "+", "-", "|")

# Color pair IDs.
C_PANE_BODY = 1
C_PANE_BORDER = 2
C_PANE_BORDER_ACTIVE = 3
C_PANE_TITLE = 4
C_FM_SELECTED = 5
C_FM_DIR = 6
C_FM_MARKED = 7
C_FM_ARCHIVE = 8
C_STATUS = 9
C_KEYBAR = 10
C_DIALOG = 11
C_BUTTON = 12
C_BUTTON_SEL = 13
C_PROGRESS = 14

# Layout constants
STATUS_BAR_HEIGHT = 1        # Status/message line above the key bar
KEY_BAR_HEIGHT = 1           # Function key legend at the bottom
PANE_MIN_WIDTH = 20          # Below this the panes are not drawn
INPUT_TIMEOUT_MS = 100       # stdscr.timeout() used by the event loop

# Function key legend shown in the bottom bar.
KEY_BAR_ITEMS = (
    ("F2", "Rename"),
    ("F5", "Copy"),
    ("F6", "Move"),
    ("F7", "MkDir"),
    ("F8", "Delete"),
    ("F10", "Quit"),
)
