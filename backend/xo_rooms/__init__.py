"""xo-rooms: комнаты крестиков-ноликов поверх WebSocket."""
