"""Main module for the rssok server.

This module allows the server to be run as a Python module using:
python -m rssok

It delegates to the server application's main function.
"""

from rssok.server.app import main

if __name__ == "__main__":
    main()
