"""Built-in command groups for the forumkey CLI.

- :mod:`~forumkey.commands.auth` -- ``forumkey auth ...``
- :mod:`~forumkey.commands.config` -- ``forumkey config ...``
"""
