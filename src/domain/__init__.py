"""Pure competition rules shared by services and scripts."""
