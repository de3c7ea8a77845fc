"""Files shipped to sibling containers through the shared target."""
