"""isummarize.inputs package

Adapters that ingest chat activity and translate it into the in-memory
records the summarization verbs work on.

Modules
-------
* slack – identifier resolution, thread aggregation and per-channel
  conversation windows."""
