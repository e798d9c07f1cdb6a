"""Page objects for the demoqa.com scenarios."""
