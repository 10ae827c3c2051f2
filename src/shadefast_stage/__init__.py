"""ShadeFast Stage: upload moderation and trending listings."""
