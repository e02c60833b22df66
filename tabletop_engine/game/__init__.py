# tabletop_engine/game/__init__.py
