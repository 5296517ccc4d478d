"""Analysis helpers working on scenarios and their traces."""
