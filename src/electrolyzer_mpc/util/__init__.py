"""
The `util` module provides the general-purpose utilities of the control engine.

- [`logging.py`](src/electrolyzer_mpc/util/logging.py): The `LoggingUtil` class,
  which provides pre-configured logger instances with a standardized format and a
  level set by environment variables.

- [`config.py`](src/electrolyzer_mpc/util/config.py): Loading of the packaged YAML
  defaults, merged with an optional override file.

- [`errors.py`](src/electrolyzer_mpc/util/errors.py): The exception hierarchy of
  the engine.
"""
