# This module handles conversation context for the agent

# +---------------------+
# |   Conversation log  |   (Ordered, append-only, per client)
# |---------------------|
# | Message index       |
# | Role + content      |
# +---------------------+

# +---------------------+
# |   Summary cache     |   (Per user + fingerprint, TTL checked on read)
# |---------------------|
# | Summary text        |
# | Covered index range |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |        Context bundle        |   (Assembled at the start of each turn)
# |------------------------------|
# | Summary of [0, split)        |
# | Raw window [split, total)    |
# | Timeout-expired flag         |
# +------------------------------+
#         |
#         v
#   [LLM / reasoning component]
