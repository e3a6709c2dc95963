"""Test package for Speed Duel.

Core tests drive the round engine with a fake clock; the UI smoke tests run
headlessly using pygame's dummy video driver to avoid opening real windows.
To run these tests, execute ``pytest`` from the project root.
"""
