"""
Test suite for the demoqa scenario runner.

This package contains:
- pages/: page objects for the demoqa pages under test
- scenarios/: browser scenarios, grouped by topic
- unit/: fast checks of the runner package, no browser needed
- runner/: in-process pytest runs exercising the plugin
"""
