"""Click commands for authdeploy."""
