"""PyQt6 desktop host for the window menu core."""
