"""Template files shipped with the package."""
