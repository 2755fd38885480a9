"""Text extraction and in-place text replacement for cloned pages."""
