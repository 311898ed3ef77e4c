"""Entity and fact resolution."""
