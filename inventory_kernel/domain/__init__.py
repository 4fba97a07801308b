"""Pure domain layer: capabilities, clock, DTOs."""
