"""Package entry point for ``python -m voice_relay``.

WHY: The process manager launches the bot as ``python -m voice_relay``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package.

HOW: Delegates to the CLI's main() function.
"""

from voice_relay.cli import main

if __name__ == "__main__":
    main()
