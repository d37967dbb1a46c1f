"""Zeus software delivery machine: assembly and HTTP service."""
