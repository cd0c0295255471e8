#
# Ollama mDNS
#
# advertise an Ollama API endpoint on the local network with mDNS/DNS-SD
#
# Copyright (c) 2022 Carnegie Mellon University
#
# SPDX-License-Identifier: MIT
#

__version__ = "0.1.0"
