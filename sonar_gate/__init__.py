"""sonar_gate

CI step that runs sonar-scanner, waits for the server-side analysis and gates
the build on the project's quality gate.

Split into:
  - config.py      : flags + environment -> RunConfig
  - properties.py  : render sonar-scanner.properties
  - scanner.py     : run sonar-scanner, extract the job handle
  - api.py         : all HTTP calls to the Sonar server
  - poller.py      : wait for the Compute Engine task
  - gate.py        : fetch and evaluate the quality gate
  - orchestrator.py: sequence one run

cli.py is the only module that decides the process exit code.
"""

__version__ = "0.1.0"
