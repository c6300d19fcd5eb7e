"""Routing between model targets by strategy and by metric."""