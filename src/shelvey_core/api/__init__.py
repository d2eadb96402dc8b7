"""HTTP interface for ShelVey Core."""
