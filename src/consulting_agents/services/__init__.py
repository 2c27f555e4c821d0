"""Service layer: datastore gateway, generation client, realtime view."""
