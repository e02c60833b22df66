# tabletop_engine/game/rules/__init__.py

"""
Check resolution: dice, hooks, validation, the prepare/process/render phases and
the ChecksPipeline that drives them.

Import from the submodules directly; contracts imports dice_roller from here, so
this package does not import its own modules eagerly.
"""
