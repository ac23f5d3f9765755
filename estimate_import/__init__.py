"""Collision estimate import service: BMS/EMS parsing, validation and reconciliation."""
