"""Character definitions, identity hashing, and persona prompts."""
