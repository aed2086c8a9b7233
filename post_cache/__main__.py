"""Main entry point for the post cache package."""

from post_cache.cli import main

if __name__ == "__main__":
    main()
