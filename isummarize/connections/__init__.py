"""isummarize.connections package

Thin clients for the external services the pipeline talks to.

Modules
-------
* openai_client – chat completion wrapper used for summarization.
* slack_client – Slack Web API calls (channels, history, replies, users,
  direct messages, home tab)."""
