"""isummarize.outputs package

Adapters that push finished digests back out to the chat platform.

Modules
-------
* slack – direct-message delivery and home tab publishing."""
