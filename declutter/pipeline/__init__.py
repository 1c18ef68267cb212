"""Analysis pipeline: file -> analyzed photo -> grouped session state."""
