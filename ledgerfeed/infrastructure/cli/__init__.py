"""Console (rich) implementation of the UserInterface port."""
