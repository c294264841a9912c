"""Pure domain logic: token encryption and order-update diffing."""
