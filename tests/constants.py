BTC = "BTC"
ETH = "ETH"
USDC = "USDC"
SOL = "SOL"

OWNER_WALLET = "0xAbC0000000000000000000000000000000000001"
SECOND_WALLET = "0xdef0000000000000000000000000000000000002"
FOREIGN_WALLET = "0x9990000000000000000000000000000000000009"
