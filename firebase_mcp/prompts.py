"""
Server instructions sent to the client during the MCP handshake.
"""

BOOTSTRAP_PROMPT = """
Firebase MCP server connected. All tools act on a single Firebase project.

## Responses

Every tool returns one text block. Structured results are JSON; plain
sentences are messages. When `isError` is true the text explains the
failure; branch on it instead of retrying blindly. `auth_get_user` and
unknown tool names fail as protocol errors instead.

## Firestore

- firestore_list_collections - root collections or sub-collections (documentPath, limit, pageToken)
- firestore_list_documents - filtered listing (collection, filters, limit, pageToken)
  - filters are ANDed: [{"field": "age", "operator": ">=", "value": 21}]
  - operators: == != < <= > >= array-contains array-contains-any in not-in
  - ISO dates ("2024-01-31", "2024-01-31T12:00:00Z") compare as timestamps
  - "No matching documents found" means the query was valid but empty
- firestore_get_document / firestore_add_document / firestore_update_document / firestore_delete_document
  - update merges the given fields; it does not create missing documents

Pass the returned `nextPageToken` / `pageToken` back to get the next page.

## Authentication

- auth_get_user - by uid, or by email when the identifier contains "@"

## Storage

- storage_list_files - one directory level (directoryPath, pageSize, pageToken)
- storage_get_file_info - metadata plus a download URL valid for one hour (filePath)
"""
