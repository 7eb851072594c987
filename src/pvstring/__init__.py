"""PV string configuration and inverter matching engine."""
