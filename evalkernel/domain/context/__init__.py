# Contexts scope one evaluation session each

#  +-------------------------+
#  |     ContextManager      |   (Looks up / creates by id)
#  +-------------------------+
#               |
#               v
#  +-------------------------+
#  |        Context          |   (Long-lived, one per contextId)
#  |-------------------------|
#  | done / async_mode flags |   reset by begin_run()
#  | config                  |
#  | namespace (globals)     |
#  | send / send_result /    |
#  |   send_error            |
#  | helpers  -> `kernel`    |
#  +-------------------------+
#               |
#               v
#  +-------------------------+
#  |       Requester         |   (id -> pending future)
#  +-------------------------+
#     emits  ["request", payload, contextId, requestId]
#     resumed by ["reply", payload, contextId, requestId]
