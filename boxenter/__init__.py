# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Enter an existing container session.

Inspects a named container, starts it and waits for its entrypoint when it
is stopped, reconciles the host and container environment, and attaches an
``exec`` session inside it.
"""
