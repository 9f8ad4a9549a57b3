"""Statistical routines: data generation, model fitting and distributions."""
