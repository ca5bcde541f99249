"""DeepWiki cache cleanup inside the running container."""
