"""Transactional operations on leagues, killer-pool games, tournaments and official ratings."""
