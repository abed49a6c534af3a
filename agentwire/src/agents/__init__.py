# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The agents module defines the LLM-backed capabilities of the system. An agent
might be thought of as a function in a program in the sense that it can be
invoked, invoke other agents itself, be composed and so forth.

Individually, an "agent" is a persona document plus a tool-calling loop. The
way the LLM sees the context is as follows:

- a system prompt, made of the agent's persona body followed by a system
  context section naming the agent and the capabilities it may call
- the conversation history of the agent's active thread, alternating user
  messages, assistant messages (text and/or capability calls) and tool
  messages carrying one result per call
- the capability schemas, offered to the provider as native tools

From the model's perspective, calling another agent and calling a primitive
tool are the same thing: both are named capabilities taking an argument object
and returning text. When an agent is called by another agent, the callee runs
its turn in a fresh delegation thread whose parent is the caller's thread, so
the full call tree can be reconstructed from the session store afterwards.
"""
