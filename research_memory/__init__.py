"""Research assistant memory: semantic recall scoped to conversations."""
