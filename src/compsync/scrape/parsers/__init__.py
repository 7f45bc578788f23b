"""Free-text field parsers shared by the document parsers."""
