"""Browser scenarios against demoqa.com."""
